from sqlalchemy.orm import Session
from learnplan.models import Flashcard
from learnplan.errors import NotFoundError
from datetime import datetime
from typing import List

def create_flashcard(db: Session, topic_id: int, front: str, back: str) -> Flashcard:
    card = Flashcard(topic_id=topic_id, front=front, back=back)
    db.add(card)
    db.commit()
    db.refresh(card)
    return card

def archive_flashcard(db: Session, flashcard_id: int, now: datetime = None) -> Flashcard:
    """Tombstone a card; the row and its reviews stay in place"""
    card = db.query(Flashcard).filter(Flashcard.id == flashcard_id).first()
    if not card:
        raise NotFoundError("Flashcard", flashcard_id)
    card.archive(now)
    db.commit()
    return card

def all_flashcards(db: Session, topic_id: int) -> List[Flashcard]:
    """Every card of a topic, archived ones included"""
    return db.query(Flashcard).filter(
        Flashcard.topic_id == topic_id
    ).order_by(Flashcard.id).all()

def active_flashcards(db: Session, topic_id: int) -> List[Flashcard]:
    return db.query(Flashcard).filter(
        Flashcard.topic_id == topic_id,
        Flashcard.is_archived.is_(False)
    ).order_by(Flashcard.id).all()
