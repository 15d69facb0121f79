from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.repos.user_repo import UserRepo
from storefront.domain.schemas import UserCreate, UserRead


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        if self.repo.get_user_by_email(payload.email):
            raise ValidationError("User with this email already exists")

        user = UserModel(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            phone=payload.phone,
        )
        created = self.repo.create_user(user)
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return UserRead.model_validate(user)
