from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IImageRepository, IInstanceTypeRepository

class SqlalchemyImageRepository(IImageRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_name(self, name: str) -> Optional[models.Image]:
        return self.db.query(models.Image).filter(models.Image.name == name).first()

    def list_all(self) -> List[models.Image]:
        return self.db.query(models.Image).order_by(models.Image.name.asc()).all()


class SqlalchemyInstanceTypeRepository(IInstanceTypeRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_name(self, name: str) -> Optional[models.InstanceType]:
        return self.db.get(models.InstanceType, name)

    def list_all(self) -> List[models.InstanceType]:
        return self.db.query(models.InstanceType).order_by(models.InstanceType.vcpus.asc()).all()
