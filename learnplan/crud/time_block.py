from sqlalchemy.orm import Session
from learnplan.models import TimeBlock
from learnplan.schemas import TimeBlockCreate
from typing import List

def create_time_block(db: Session, block: TimeBlockCreate) -> TimeBlock:
    """Create a weekly availability window"""
    db_block = TimeBlock(**block.model_dump())
    db.add(db_block)
    db.commit()
    db.refresh(db_block)
    return db_block

def get_time_blocks(db: Session, child_id: int) -> List[TimeBlock]:
    """All time blocks for a child ordered by day and start"""
    return db.query(TimeBlock).filter(
        TimeBlock.child_id == child_id
    ).order_by(TimeBlock.day_of_week, TimeBlock.start_time).all()

def delete_time_block(db: Session, block_id: int) -> bool:
    block = db.query(TimeBlock).filter(TimeBlock.id == block_id).first()
    if not block:
        return False
    db.delete(block)
    db.commit()
    return True


class SqlTimeBlockStore:
    """TimeBlockStore over a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def for_child(self, child_id: int) -> List[TimeBlock]:
        return get_time_blocks(self.db, child_id)
