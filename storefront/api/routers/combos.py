# storefront/api/routers/combos.py
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import ComboCreate, ComboUpdate, ComboOut
from storefront.services.combo_service import ComboService

router = APIRouter(prefix="/combos", tags=["combos"])


@router.post("/", response_model=ComboOut, status_code=201)
def create_combo(
    payload: ComboCreate,
    created_by: int | None = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    return ComboService(db).create_combo(payload, created_by=created_by)


@router.get("/", response_model=List[ComboOut])
def list_combos(db: Session = Depends(get_db)):
    return ComboService(db).list_active()


@router.get("/{combo_id}", response_model=ComboOut)
def get_combo(combo_id: int, db: Session = Depends(get_db)):
    return ComboService(db).get_combo(combo_id)


@router.patch("/{combo_id}", response_model=ComboOut)
def update_combo(combo_id: int, payload: ComboUpdate, db: Session = Depends(get_db)):
    return ComboService(db).update_combo(combo_id, payload)


@router.delete("/{combo_id}", status_code=204)
def delete_combo(
    combo_id: int,
    actor_id: int | None = Query(None, gt=0),
    actor_role: str | None = Query(None),
    db: Session = Depends(get_db),
):
    ComboService(db).delete_combo(combo_id, actor_id=actor_id, actor_role=actor_role)
    return Response(status_code=204)
