from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IPeeringRepository, ISubnetRepository, IVPCRepository
from .base import commit_or_conflict

class SqlalchemyVPCRepository(IVPCRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, vpc: models.VPC) -> models.VPC:
        self.db.add(vpc)
        commit_or_conflict(self.db, f"VPC name '{vpc.name}' already exists in this tenant.")
        self.db.refresh(vpc)
        return vpc

    def find_by_id(self, tenant_id: str, vpc_id: str) -> Optional[models.VPC]:
        return self.db.query(models.VPC).filter(
            models.VPC.id == vpc_id,
            models.VPC.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.VPC]:
        return self.db.query(models.VPC).filter(
            models.VPC.name == name,
            models.VPC.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.VPC]:
        return self.db.query(models.VPC).filter(models.VPC.tenant_id == tenant_id).order_by(models.VPC.created_at.desc()).all()

    def update(self, vpc: models.VPC) -> models.VPC:
        self.db.add(vpc)
        self.db.commit()
        self.db.refresh(vpc)
        return vpc

    def delete(self, vpc: models.VPC) -> bool:
        if vpc:
            self.db.delete(vpc)
            self.db.commit()
            return True
        return False


class SqlalchemySubnetRepository(ISubnetRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, subnet: models.Subnet) -> models.Subnet:
        self.db.add(subnet)
        commit_or_conflict(self.db, f"Subnet '{subnet.name}' could not be created.")
        self.db.refresh(subnet)
        return subnet

    def find_by_id(self, tenant_id: str, subnet_id: str) -> Optional[models.Subnet]:
        return self.db.query(models.Subnet).filter(
            models.Subnet.id == subnet_id,
            models.Subnet.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, vpc_id: str, name: str) -> Optional[models.Subnet]:
        return self.db.query(models.Subnet).filter(
            models.Subnet.name == name,
            models.Subnet.vpc_id == vpc_id,
            models.Subnet.tenant_id == tenant_id
        ).first()

    def list_by_vpc(self, tenant_id: str, vpc_id: str) -> List[models.Subnet]:
        return self.db.query(models.Subnet).filter(
            models.Subnet.vpc_id == vpc_id,
            models.Subnet.tenant_id == tenant_id
        ).order_by(models.Subnet.created_at.asc()).all()

    def count_by_vpc(self, vpc_id: str) -> int:
        return self.db.query(models.Subnet).filter(models.Subnet.vpc_id == vpc_id).count()

    def delete(self, subnet: models.Subnet) -> bool:
        if subnet:
            self.db.delete(subnet)
            self.db.commit()
            return True
        return False


class SqlalchemyPeeringRepository(IPeeringRepository):
    OPEN_STATUSES = ("PENDING", "ACTIVE")

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, peering: models.VPCPeering) -> models.VPCPeering:
        peering.pair_key = models.VPCPeering.make_pair_key(peering.requester_vpc_id, peering.accepter_vpc_id)
        self.db.add(peering)
        commit_or_conflict(self.db, "A peering connection already exists between these VPCs.")
        self.db.refresh(peering)
        return peering

    def find_by_id(self, tenant_id: str, peering_id: str) -> Optional[models.VPCPeering]:
        return self.db.query(models.VPCPeering).filter(
            models.VPCPeering.id == peering_id,
            models.VPCPeering.tenant_id == tenant_id
        ).first()

    def find_open_by_pair(self, vpc_a: str, vpc_b: str) -> Optional[models.VPCPeering]:
        return self.db.query(models.VPCPeering).filter(
            models.VPCPeering.pair_key == models.VPCPeering.make_pair_key(vpc_a, vpc_b),
            models.VPCPeering.status.in_(self.OPEN_STATUSES)
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.VPCPeering]:
        return self.db.query(models.VPCPeering).filter(models.VPCPeering.tenant_id == tenant_id).order_by(models.VPCPeering.created_at.desc()).all()

    def count_active_by_vpc(self, vpc_id: str) -> int:
        return self.db.query(models.VPCPeering).filter(
            or_(models.VPCPeering.requester_vpc_id == vpc_id, models.VPCPeering.accepter_vpc_id == vpc_id),
            models.VPCPeering.status == "ACTIVE"
        ).count()

    def update_status(self, peering: models.VPCPeering, status: str) -> models.VPCPeering:
        peering.status = status
        self.db.commit()
        self.db.refresh(peering)
        return peering

    def delete(self, peering: models.VPCPeering) -> bool:
        if peering:
            self.db.delete(peering)
            self.db.commit()
            return True
        return False
