# storefront/api/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import UserCreate, UserRead, AddressIn, SelectAddressIn
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return UserService(db).create_user(payload)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return UserService(db).get_user(user_id)


@router.post("/{user_id}/addresses", response_model=UserRead, status_code=201)
def add_address(user_id: int, payload: AddressIn, db: Session = Depends(get_db)):
    return UserService(db).add_address(user_id, payload)


@router.put("/{user_id}/selected-address", response_model=UserRead)
def select_address(user_id: int, payload: SelectAddressIn, db: Session = Depends(get_db)):
    return UserService(db).select_address(user_id, payload.address_id)
