from minicloud.utils.flow_compiler import FlowRule

from .cluster import ClusterProvisioner
from .compute import ComputeBackend, RunTaskOptions
from .dns import DNSService
from .network import NetworkBackend
from .proxy import ProxyAdapter
from .storage import StorageBackend
