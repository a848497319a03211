# tests/services/test_vpc_subnet_service.py
import pytest

from minicloud.backends.exceptions import BackendError
from minicloud.services.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError

# ===================================================================
#  VPC 테스트 스위트
# ===================================================================
class TestVpc:
    def test_create_vpc_creates_bridge_then_record(self, services, backends, ctx):
        """VPC 생성 시 브리지를 만들고 ACTIVE 상태로 저장하는지 테스트합니다."""
        vpc = services.vpcs.create_vpc(ctx, "main", "10.0.0.0/16")

        assert vpc.status == "ACTIVE"
        assert vpc.cidr_block == "10.0.0.0/16"
        assert vpc.network_id == f"br-vpc-{vpc.id[:8]}"
        backends.network.create_bridge.assert_called_once_with(vpc.network_id, vpc.vxlan_id)

    def test_default_cidr(self, services, ctx):
        vpc = services.vpcs.create_vpc(ctx, "defaults")
        assert vpc.cidr_block == "10.0.0.0/16"

    def test_invalid_cidr_is_rejected_before_backend(self, services, backends, ctx):
        with pytest.raises(InvalidInputError):
            services.vpcs.create_vpc(ctx, "bad", "10.0.0.0/33")
        backends.network.create_bridge.assert_not_called()

    def test_duplicate_name(self, services, ctx):
        services.vpcs.create_vpc(ctx, "dup")
        with pytest.raises(ConflictError):
            services.vpcs.create_vpc(ctx, "dup")

    def test_bridge_failure_leaves_no_record(self, services, backends, ctx):
        """브리지 생성이 실패하면 InternalError 가 발생하고 VPC 기록이 남지 않아야 합니다."""
        backends.network.create_bridge.side_effect = BackendError("ovs-vsctl failed")

        with pytest.raises(InternalError) as exc_info:
            services.vpcs.create_vpc(ctx, "broken")

        assert isinstance(exc_info.value.cause, BackendError)
        assert services.vpcs.list_vpcs(ctx) == []

    def test_vpcs_are_tenant_scoped(self, services, ctx, other_ctx):
        vpc = services.vpcs.create_vpc(ctx, "mine")
        with pytest.raises(NotFoundError):
            services.vpcs.get_vpc(other_ctx, vpc.id)

    def test_delete_vpc_refused_while_subnets_exist(self, services, backends, ctx):
        vpc = services.vpcs.create_vpc(ctx, "busy", "10.0.0.0/16")
        services.subnets.create_subnet(ctx, vpc.id, "s1", "10.0.1.0/24")

        with pytest.raises(ConflictError):
            services.vpcs.delete_vpc(ctx, vpc.id)
        backends.network.delete_bridge.assert_not_called()

    def test_delete_vpc(self, services, backends, ctx):
        vpc = services.vpcs.create_vpc(ctx, "gone")

        assert services.vpcs.delete_vpc(ctx, "gone") is True

        backends.network.delete_bridge.assert_called_once_with(vpc.network_id)
        with pytest.raises(NotFoundError):
            services.vpcs.get_vpc(ctx, vpc.id)


# ===================================================================
#  Subnet 테스트 스위트
# ===================================================================
class TestSubnet:
    @pytest.fixture
    def vpc(self, services, ctx):
        return services.vpcs.create_vpc(ctx, "net", "10.0.0.0/16")

    def test_gateway_is_first_host(self, services, ctx, vpc):
        subnet = services.subnets.create_subnet(ctx, vpc.id, "web", "10.0.1.0/24")
        assert subnet.gateway_ip == "10.0.1.1"
        assert subnet.vpc_id == vpc.id

    def test_subnet_must_be_within_vpc(self, services, ctx, vpc):
        with pytest.raises(InvalidInputError):
            services.subnets.create_subnet(ctx, vpc.id, "outside", "10.1.0.0/24")

    def test_overlapping_sibling_is_conflict(self, services, ctx, vpc):
        services.subnets.create_subnet(ctx, vpc.id, "a", "10.0.1.0/24")
        with pytest.raises(ConflictError):
            services.subnets.create_subnet(ctx, vpc.id, "b", "10.0.1.128/25")

    def test_disjoint_siblings(self, services, ctx, vpc):
        services.subnets.create_subnet(ctx, vpc.id, "a", "10.0.1.0/24")
        services.subnets.create_subnet(ctx, vpc.id, "b", "10.0.2.0/24")
        assert [s.cidr_block for s in sorted(services.subnets.list_subnets(ctx, vpc.id), key=lambda s: s.name)] == [
            "10.0.1.0/24", "10.0.2.0/24",
        ]

    def test_lookup_by_name_within_vpc(self, services, ctx, vpc):
        subnet = services.subnets.create_subnet(ctx, vpc.id, "db", "10.0.3.0/24")
        assert services.subnets.get_subnet(ctx, "db", vpc.id).id == subnet.id

    def test_delete_subnet_refused_while_instances_exist(self, services, ctx, vpc):
        subnet = services.subnets.create_subnet(ctx, vpc.id, "app", "10.0.4.0/24")
        services.instances.launch_instance(ctx, "web-1", "alpine", subnet_id=subnet.id)

        with pytest.raises(ConflictError):
            services.subnets.delete_subnet(ctx, subnet.id)
