from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel, AddressModel
from storefront.domain.errors import NotFound
from storefront.domain.schemas import UserCreate, AddressIn
from storefront.repos.user_repo import UserRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserModel:
        existing = self.repo.get_user(payload.id)
        if existing:
            return existing

        created = self.repo.create_user(UserModel(id=payload.id, name=payload.name))
        logger.info(f"User {created.id} created")
        return created

    def get_user(self, user_id: int) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user

    def add_address(self, user_id: int, payload: AddressIn) -> UserModel:
        user = self.get_user(user_id)
        address = self.repo.add_address(
            user,
            AddressModel(**payload.model_dump(exclude={"select"})),
        )
        if payload.select or user.selected_address_id is None:
            user.selected_address_id = address.id
            self.repo.commit()
        logger.info(f"Address {address.id} added for user {user_id}")
        return user

    def select_address(self, user_id: int, address_id: int) -> UserModel:
        user = self.get_user(user_id)
        if not self.repo.get_address(user, address_id):
            raise NotFound(f"Address {address_id} not found")
        user.selected_address_id = address_id
        self.repo.commit()
        return user
