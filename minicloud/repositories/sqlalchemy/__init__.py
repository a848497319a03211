from .sqlalchemy_activity_repository import SqlalchemyAuditRepository, SqlalchemyEventRepository, SqlalchemyTaskRepository
from .sqlalchemy_cluster_repository import SqlalchemyClusterRepository
from .sqlalchemy_function_repository import SqlalchemyFunctionRepository
from .sqlalchemy_image_repository import SqlalchemyImageRepository, SqlalchemyInstanceTypeRepository
from .sqlalchemy_instance_repository import SqlalchemyInstanceRepository
from .sqlalchemy_loadbalancer_repository import SqlalchemyLoadBalancerRepository
from .sqlalchemy_log_repository import SqlalchemyLogRepository
from .sqlalchemy_managed_repository import SqlalchemyCacheRepository, SqlalchemyManagedDatabaseRepository
from .sqlalchemy_secret_repository import SqlalchemySecretRepository
from .sqlalchemy_security_group_repository import SqlalchemySecurityGroupRepository
from .sqlalchemy_stack_repository import SqlalchemyStackRepository
from .sqlalchemy_tenant_repository import SqlalchemyTenantRepository
from .sqlalchemy_volume_repository import SqlalchemySnapshotRepository, SqlalchemyVolumeRepository
from .sqlalchemy_vpc_repository import SqlalchemyPeeringRepository, SqlalchemySubnetRepository, SqlalchemyVPCRepository
