import re
import uuid
from sqlalchemy.orm import Session
from app.models.movie import Movie


def generate_slug(text: str) -> str:
    """Convert text to a URL-safe slug: lowercase, hyphens, no special chars."""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    return re.sub(r"-+", "-", slug).strip("-") or "movie"


def make_unique_slug(db: Session, title: str, year: int = None) -> str:
    """Slug from the title (plus release year when known), suffixed on collision."""
    base_slug = generate_slug(f"{title} {year}" if year else title)
    slug = base_slug
    while db.query(Movie.id).filter(Movie.slug == slug).first() is not None:
        slug = f"{base_slug}-{uuid.uuid4().hex[:6]}"
    return slug
