from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    selected_address_id = Column(Integer, nullable=True)

    addresses = relationship(
        "AddressModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="AddressModel.id",
    )


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    country = Column(String, nullable=False, default="INDIA")
    house_details = Column(String, nullable=False, default="")
    landmark = Column(String, nullable=False, default="")
    state = Column(String, nullable=True)
    city = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    map_url = Column(String, nullable=True)

    user = relationship("UserModel", back_populates="addresses")

    def snapshot(self) -> dict:
        return {
            "country": self.country or "INDIA",
            "house_details": self.house_details or "",
            "landmark": self.landmark or "",
            "state": self.state or "",
            "city": self.city or "",
            "postal_code": self.postal_code or "",
            "map_url": self.map_url or "",
        }
