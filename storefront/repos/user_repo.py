from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel, AddressModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_address(self, user: UserModel, address_id: int | None) -> AddressModel | None:
        if address_id is None:
            return None
        return next((a for a in user.addresses if a.id == address_id), None)

    def add_address(self, user: UserModel, address: AddressModel) -> AddressModel:
        user.addresses.append(address)
        self.db.commit()
        self.db.refresh(address)
        return address

    def commit(self) -> None:
        self.db.commit()
