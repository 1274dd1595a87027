from flask_jwt_extended import create_access_token, get_jwt_identity

from extensions import db
from users.models import User
from utils.errors import ForbiddenError, LedgerError


def issue_token(user: User) -> str:
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def current_caller() -> User:
    """The verified caller behind the request's JWT. Use inside @jwt_required()."""
    identity = get_jwt_identity()
    user = db.session.get(User, int(identity)) if identity else None
    if not user:
        raise LedgerError("Unauthorized", 401)
    return user


def require_admin(caller: User):
    if not caller.is_admin:
        raise ForbiddenError("Forbidden - Admin access required")


def require_member_access(caller: User, member_id: int, message="Forbidden - You can only act on your own records"):
    """ADMIN, or the caller's linked member is the one being acted on."""
    if caller.is_admin:
        return
    if not caller.member_id or caller.member_id != member_id:
        raise ForbiddenError(message)
