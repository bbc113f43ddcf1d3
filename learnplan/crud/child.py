from sqlalchemy.orm import Session
from learnplan.models import Child, Subject, Topic
from learnplan.schemas import ChildCreate
from learnplan.errors import NotFoundError
from typing import Optional

def create_child(db: Session, child: ChildCreate) -> Child:
    """Create a new child profile"""
    db_child = Child(**child.model_dump())
    db.add(db_child)
    db.commit()
    db.refresh(db_child)
    return db_child

def get_child(db: Session, child_id: int) -> Optional[Child]:
    """Get child by ID"""
    return db.query(Child).filter(Child.id == child_id).first()

def require_child(db: Session, child_id: int) -> Child:
    child = get_child(db, child_id)
    if child is None:
        raise NotFoundError("Child", child_id)
    return child

def create_subject(db: Session, child_id: int, name: str) -> Subject:
    subject = Subject(child_id=child_id, name=name)
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject

def create_topic(db: Session, subject_id: int, title: str, estimated_minutes: int = 30) -> Topic:
    topic = Topic(subject_id=subject_id, title=title, estimated_minutes=estimated_minutes)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic

def delete_child(db: Session, child_id: int) -> bool:
    """Delete a child and everything it owns"""
    child = get_child(db, child_id)
    if not child:
        return False
    db.delete(child)
    db.commit()
    return True
