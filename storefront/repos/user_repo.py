from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel
from storefront.data.models.address import AddressModel


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

    def add_address(self, address: AddressModel) -> AddressModel:
        #no commit, the address shares the order transaction
        self.db.add(address)
        self.db.flush()
        return address
