import secrets
import string

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models

ALPHABET = string.ascii_letters + string.digits
CODE_LENGTH = 6


class DuplicateCode(Exception):
    """The store already holds a link with this code."""

    def __init__(self, code: str):
        super().__init__(f"code already exists: {code}")
        self.code = code


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))

def code_exists(db: Session, code: str) -> bool:
    return db.scalar(select(models.Link.id).filter_by(code=code)) is not None

def generate_unique_code(db: Session) -> str:
    # No attempt limit: at 62**6 codes a collision streak needs a nearly full table
    code = generate_code()
    while code_exists(db, code):
        code = generate_code()
    return code

def create_link(db: Session, code: str, url: str) -> models.Link:
    link = models.Link(code=code, url=url)
    db.add(link)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateCode(code) from exc
    db.refresh(link)
    return link

def create_link_with_generated_code(db: Session, url: str) -> models.Link:
    while True:
        try:
            return create_link(db, generate_unique_code(db), url)
        except DuplicateCode:
            # Another request took the code between the check and the insert
            continue

def get_link(db: Session, code: str) -> models.Link | None:
    return db.query(models.Link).filter_by(code=code).first()

def list_links(db: Session) -> list[models.Link]:
    return (
        db.query(models.Link)
        .order_by(models.Link.created_at.desc(), models.Link.id.desc())
        .all()
    )

def delete_link(db: Session, code: str) -> bool:
    deleted = db.query(models.Link).filter_by(code=code).delete(synchronize_session=False)
    db.commit()
    return deleted > 0

def record_click(db: Session, code: str) -> str | None:
    """Count one visit and return the destination, or None for an unknown code.

    Increment and read happen in a single UPDATE ... RETURNING so concurrent
    visits never lose a count.
    """
    stmt = (
        update(models.Link)
        .where(models.Link.code == code)
        .values(clicks=models.Link.clicks + 1, last_clicked=func.now())
        .returning(models.Link.url)
        .execution_options(synchronize_session=False)
    )
    url = db.execute(stmt).scalar_one_or_none()
    db.commit()
    return url

def ping(db: Session) -> None:
    db.execute(text("SELECT 1"))
