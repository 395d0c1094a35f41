""" Offer endpoints: public list of active offers + admin CRUD.

Prices are never cached here; only the public offer listing is.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import asc
import time

from skybook.api.deps import require_roles
from skybook.api.serializers import active_offers
from skybook.db.session import get_db
from skybook.models.offer import Offer
from skybook.schemas.offer import OfferIn

router = APIRouter()

# Simple in-process TTL cache (invalidate on write). Not multi-process safe.
_CACHE_TTL = 60  # seconds
_cache_store = {
    'offers': {'ts': 0, 'data': []},
}

def _cache_get(key: str):
    entry = _cache_store.get(key)
    if not entry or time.time() - entry['ts'] > _CACHE_TTL:
        return None
    return entry['data']

def _cache_set(key: str, data):
    _cache_store[key] = {'ts': time.time(), 'data': data}

def _cache_invalidate(*keys: str):
    for k in keys:
        if k in _cache_store:
            _cache_store[k]['ts'] = 0

def _offer_out(o: Offer, admin: bool = False) -> dict:
    data = {
        'id': o.id,
        'title': o.title,
        'description': o.description,
        'discount': float(o.discount),
        'valid_from': o.valid_from.isoformat(),
        'valid_to': o.valid_to.isoformat(),
        'applicable_flights': o.applicable_flights or [],
        'applicable_airlines': o.applicable_airlines or [],
        'applicable_routes': o.applicable_routes or [],
        'min_price': float(o.min_price) if o.min_price is not None else None,
        'max_discount': float(o.max_discount) if o.max_discount is not None else None,
        'position': o.position,
    }
    if admin:
        data['is_active'] = o.is_active
    return data

def _apply(o: Offer, payload: OfferIn):
    o.title = payload.title.strip()
    o.description = payload.description
    o.discount = payload.discount
    # stored naive UTC like every other timestamp column
    o.valid_from = payload.valid_from.replace(tzinfo=None)
    o.valid_to = payload.valid_to.replace(tzinfo=None)
    o.applicable_flights = list(payload.applicable_flights)
    o.applicable_airlines = list(payload.applicable_airlines)
    o.applicable_routes = [r.model_dump() for r in payload.applicable_routes]
    o.min_price = payload.min_price
    o.max_discount = payload.max_discount
    o.position = payload.position
    o.is_active = payload.is_active

@router.get('/offers', response_model=List[dict])
def public_offers(db: Session = Depends(get_db)):
    cached = _cache_get('offers')
    if cached is not None:
        return cached
    data = [_offer_out(o) for o in active_offers(db)]
    _cache_set('offers', data)
    return data

# Admin CRUD
@router.get('/admin/offers', dependencies=[Depends(require_roles('admin'))], response_model=List[dict])
def list_offers(db: Session = Depends(get_db)):
    items = db.query(Offer).order_by(asc(Offer.position), asc(Offer.id)).all()
    return [_offer_out(o, admin=True) for o in items]

@router.post('/admin/offers', dependencies=[Depends(require_roles('admin'))], response_model=dict, status_code=201)
def create_offer(payload: OfferIn, db: Session = Depends(get_db)):
    o = Offer()
    _apply(o, payload)
    db.add(o)
    db.commit()
    db.refresh(o)
    _cache_invalidate('offers')
    return {'id': o.id}

@router.put('/admin/offers/{offer_id}', dependencies=[Depends(require_roles('admin'))], response_model=dict)
def update_offer(offer_id: int, payload: OfferIn, db: Session = Depends(get_db)):
    o = db.get(Offer, offer_id)
    if not o:
        raise HTTPException(status_code=404, detail='not found')
    _apply(o, payload)
    db.commit()
    _cache_invalidate('offers')
    return {'status': 'ok'}

@router.delete('/admin/offers/{offer_id}', dependencies=[Depends(require_roles('admin'))], response_model=dict)
def delete_offer(offer_id: int, db: Session = Depends(get_db)):
    o = db.get(Offer, offer_id)
    if not o:
        raise HTTPException(status_code=404, detail='not found')
    db.delete(o)
    db.commit()
    _cache_invalidate('offers')
    return {'status': 'deleted'}
