from .audit import AuditLog, Event
from .cluster import Cluster
from .function import Function, Invocation
from .image import Image, InstanceType
from .instance import Instance
from .loadbalancer import LBTarget, LoadBalancer
from .log_entry import LogEntry
from .managed import Cache, ManagedDatabase
from .peering import VPCPeering
from .secret import Secret
from .security_group import SecurityGroup, SecurityRule, instance_security_groups
from .stack import Stack, StackResource
from .subnet import Subnet
from .task import TaskMessage
from .tenant import Tenant, TenantQuota
from .volume import Snapshot, Volume
from .vpc import VPC
