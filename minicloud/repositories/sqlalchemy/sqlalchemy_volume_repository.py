from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ISnapshotRepository, IVolumeRepository

class SqlalchemyVolumeRepository(IVolumeRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, volume: models.Volume) -> models.Volume:
        self.db.add(volume)
        self.db.commit()
        self.db.refresh(volume)
        return volume

    def find_by_id(self, tenant_id: str, volume_id: str) -> Optional[models.Volume]:
        return self.db.query(models.Volume).filter(
            models.Volume.id == volume_id,
            models.Volume.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Volume]:
        return self.db.query(models.Volume).filter(
            models.Volume.name == name,
            models.Volume.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Volume]:
        return self.db.query(models.Volume).filter(models.Volume.tenant_id == tenant_id).order_by(models.Volume.created_at.desc()).all()

    def list_by_instance(self, tenant_id: str, instance_id: str) -> List[models.Volume]:
        return self.db.query(models.Volume).filter(
            models.Volume.instance_id == instance_id,
            models.Volume.tenant_id == tenant_id
        ).all()

    def update(self, volume: models.Volume) -> models.Volume:
        self.db.add(volume)
        self.db.commit()
        self.db.refresh(volume)
        return volume

    def delete(self, volume: models.Volume) -> bool:
        if volume:
            self.db.delete(volume)
            self.db.commit()
            return True
        return False


class SqlalchemySnapshotRepository(ISnapshotRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, snapshot: models.Snapshot) -> models.Snapshot:
        self.db.add(snapshot)
        self.db.commit()
        self.db.refresh(snapshot)
        return snapshot

    def find_by_id(self, tenant_id: str, snapshot_id: str) -> Optional[models.Snapshot]:
        return self.db.query(models.Snapshot).filter(
            models.Snapshot.id == snapshot_id,
            models.Snapshot.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Snapshot]:
        return self.db.query(models.Snapshot).filter(models.Snapshot.tenant_id == tenant_id).order_by(models.Snapshot.created_at.desc()).all()

    def update(self, snapshot: models.Snapshot) -> models.Snapshot:
        self.db.add(snapshot)
        self.db.commit()
        self.db.refresh(snapshot)
        return snapshot

    def delete(self, snapshot: models.Snapshot) -> bool:
        if snapshot:
            self.db.delete(snapshot)
            self.db.commit()
            return True
        return False
