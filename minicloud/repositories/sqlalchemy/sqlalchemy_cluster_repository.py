from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IClusterRepository

class SqlalchemyClusterRepository(IClusterRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, cluster: models.Cluster) -> models.Cluster:
        self.db.add(cluster)
        self.db.commit()
        self.db.refresh(cluster)
        return cluster

    def find_by_id(self, tenant_id: str, cluster_id: str) -> Optional[models.Cluster]:
        return self.db.query(models.Cluster).filter(
            models.Cluster.id == cluster_id,
            models.Cluster.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Cluster]:
        return self.db.query(models.Cluster).filter(models.Cluster.tenant_id == tenant_id).order_by(models.Cluster.created_at.desc()).all()

    def update(self, cluster: models.Cluster) -> models.Cluster:
        self.db.add(cluster)
        self.db.commit()
        self.db.refresh(cluster)
        return cluster

    def delete(self, cluster: models.Cluster) -> bool:
        if cluster:
            self.db.delete(cluster)
            self.db.commit()
            return True
        return False
