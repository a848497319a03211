from .activity import IAuditRepository, IEventRepository, ITaskRepository
from .cluster import IClusterRepository
from .function import IFunctionRepository
from .image import IImageRepository, IInstanceTypeRepository
from .instance import IInstanceRepository
from .loadbalancer import ILoadBalancerRepository
from .log import ILogRepository
from .managed import ICacheRepository, IManagedDatabaseRepository
from .secret import ISecretRepository
from .security_group import ISecurityGroupRepository
from .stack import IStackRepository
from .tenant import ITenantRepository
from .volume import ISnapshotRepository, IVolumeRepository
from .vpc import IPeeringRepository, ISubnetRepository, IVPCRepository
