from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from dex_metrics.ingestion.loader import normalize_address
from dex_metrics.storage.db import get_db
from dex_metrics.storage.writer import get_value, last_block_number
from dex_metrics.utils.metric_bank import factory_metrics, pool_metrics, resolve, to_jsonable, token_metrics

router = APIRouter()


def _reader(db: Session):
    return lambda store_name, key: get_value(db, store_name, key)


@router.get("/")
def read_root(db: Session = Depends(get_db)):
    return {"message": "dex-metrics", "last_block": last_block_number(db)}


@router.get("/factory")
def read_factory(db: Session = Depends(get_db)):
    return to_jsonable(resolve(factory_metrics(), _reader(db)))


@router.get("/tokens/{address}")
def read_token(address: str, db: Session = Depends(get_db)):
    address = normalize_address(address)
    values = resolve(token_metrics(address), _reader(db))
    if all(v is None for v in values.values()):
        raise HTTPException(status_code=404, detail=f"token {address} not found")
    return {"address": address, **to_jsonable(values)}


@router.get("/pools/{address}")
def read_pool(address: str, db: Session = Depends(get_db)):
    address = normalize_address(address)
    values = resolve(pool_metrics(address), _reader(db))
    if values["pool"] is None:
        raise HTTPException(status_code=404, detail=f"pool {address} not found")
    return {"address": address, **to_jsonable(values)}
