from typing import List, Optional
from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ISecurityGroupRepository

membership = models.instance_security_groups

class SqlalchemySecurityGroupRepository(ISecurityGroupRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, group: models.SecurityGroup) -> models.SecurityGroup:
        for position, rule in enumerate(group.rules):
            rule.position = position
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        return group

    def find_by_id(self, tenant_id: str, group_id: str) -> Optional[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).filter(
            models.SecurityGroup.id == group_id,
            models.SecurityGroup.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, vpc_id: str, name: str) -> Optional[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).filter(
            models.SecurityGroup.name == name,
            models.SecurityGroup.vpc_id == vpc_id,
            models.SecurityGroup.tenant_id == tenant_id
        ).first()

    def list_by_vpc(self, tenant_id: str, vpc_id: str) -> List[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).filter(
            models.SecurityGroup.vpc_id == vpc_id,
            models.SecurityGroup.tenant_id == tenant_id
        ).order_by(models.SecurityGroup.created_at.asc()).all()

    def add_rule(self, group: models.SecurityGroup, rule: models.SecurityRule) -> models.SecurityRule:
        rule.position = max((r.position for r in group.rules), default=-1) + 1
        group.rules.append(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def find_rule(self, rule_id: str) -> Optional[models.SecurityRule]:
        return self.db.get(models.SecurityRule, rule_id)

    def delete_rule(self, rule: models.SecurityRule) -> bool:
        if rule:
            self.db.delete(rule)
            self.db.commit()
            return True
        return False

    def add_instance(self, group_id: str, instance_id: str) -> None:
        exists = self.db.execute(
            select(membership.c.group_id).where(
                membership.c.group_id == group_id,
                membership.c.instance_id == instance_id
            )
        ).first()
        if exists:
            return
        self.db.execute(insert(membership).values(group_id=group_id, instance_id=instance_id))
        self.db.commit()

    def remove_instance(self, group_id: str, instance_id: str) -> bool:
        result = self.db.execute(
            delete(membership).where(
                membership.c.group_id == group_id,
                membership.c.instance_id == instance_id
            )
        )
        self.db.commit()
        return result.rowcount > 0

    def list_instance_ids(self, group_id: str) -> List[str]:
        rows = self.db.execute(select(membership.c.instance_id).where(membership.c.group_id == group_id)).all()
        return [row[0] for row in rows]

    def list_group_ids_by_instance(self, instance_id: str) -> List[str]:
        rows = self.db.execute(select(membership.c.group_id).where(membership.c.instance_id == instance_id)).all()
        return [row[0] for row in rows]

    def delete(self, group: models.SecurityGroup) -> bool:
        if group:
            self.db.execute(delete(membership).where(membership.c.group_id == group.id))
            self.db.delete(group)
            self.db.commit()
            return True
        return False
