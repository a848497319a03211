# minicloud/backends/libvirt_compute_backend.py
import logging
import os
import shutil
import tempfile
import time
import uuid
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import libvirt

from minicloud import config
from minicloud.backends.command import run_command
from minicloud.backends.exceptions import BackendError, BackendTimeoutError
from minicloud.backends.interfaces import ComputeBackend, RunTaskOptions
from minicloud.utils.container_xml_generator import METADATA_NS, generate_container_xml
from minicloud.utils.ports import find_host_port

logger = logging.getLogger(__name__)

TASK_MOUNT_DIR = "/.minicloud-task"
EXIT_CODE_FILE = "exit_code"
NETWORK_TEMPLATE = """<network>
  <name>{name}</name>
  <forward mode='bridge'/>
  <bridge name='{name}'/>
  <virtualport type='openvswitch'/>
</network>
"""


class LibvirtComputeBackend(ComputeBackend):
    """
    libvirt LXC 드라이버로 컨테이너를 관리하는 컴퓨트 백엔드.

    컨테이너 ID는 libvirt 도메인 UUID 입니다. 포트 매핑은 도메인 메타데이터에 기록하고,
    일회성 작업(run_task)은 종료 코드를 바인드 마운트된 작업 디렉터리에 남기도록 감쌉니다.
    """

    def __init__(self, uri: str = None, rootfs_dir: str = None, log_dir: str = "/var/log/libvirt/lxc"):
        self.uri = uri or config.LIBVIRT_URI
        self.rootfs_dir = rootfs_dir or config.ROOTFS_DIR
        self.log_dir = log_dir
        self._task_dirs: Dict[str, str] = {}
        try:
            self.conn = libvirt.open(self.uri)
        except libvirt.libvirtError as e:
            raise BackendError(f"Failed to open connection to {self.uri}: {e}") from e

    def __del__(self):
        conn = getattr(self, "conn", None)
        if conn is not None:
            try:
                conn.close()
            except libvirt.libvirtError:
                pass

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _rootfs_for(self, image: str) -> str:
        if os.path.isabs(image):
            return image
        return os.path.join(self.rootfs_dir, image.replace(":", "-"))

    def _lookup(self, container_id: str):
        try:
            return self.conn.lookupByUUIDString(container_id)
        except libvirt.libvirtError as e:
            raise BackendError(f"container {container_id} not found: {e}") from e

    def _define_and_start(self, xml: str):
        domain = None
        try:
            domain = self.conn.defineXML(xml)
            if domain.create() < 0:
                raise BackendError("failed to start the container after definition")
            return domain
        except libvirt.libvirtError as e:
            self._cleanup_domain(domain)
            raise BackendError(f"failed to create container: {e}") from e
        except BackendError:
            self._cleanup_domain(domain)
            raise

    @staticmethod
    def _cleanup_domain(domain):
        if domain is None:
            return
        try:
            if domain.isActive():
                domain.destroy()
            domain.undefine()
        except libvirt.libvirtError as e:
            logger.warning("Failed to clean up libvirt domain: %s", e)

    # ------------------------------------------------------------------
    # containers
    # ------------------------------------------------------------------
    def create_container(self, name: str, image: str, ports: List[str], network_id: str,
                         mounts: List[str], env: Dict[str, str], cmd: List[str]) -> str:
        xml = generate_container_xml(
            name=name,
            container_uuid=str(uuid.uuid4()),
            image=image,
            rootfs_path=self._rootfs_for(image),
            cmd=cmd or None,
            env=env,
            mounts=mounts,
            ports=",".join(ports or []),
            network_id=network_id or "",
        )
        domain = self._define_and_start(xml)
        logger.info("Container %s created (%s)", name, domain.UUIDString())
        return domain.UUIDString()

    def start_container(self, container_id: str) -> None:
        domain = self._lookup(container_id)
        try:
            if not domain.isActive():
                domain.create()
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to start container {container_id}: {e}") from e

    def stop_container(self, container_id: str) -> None:
        domain = self._lookup(container_id)
        try:
            if domain.isActive():
                domain.destroy()
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to stop container {container_id}: {e}") from e

    def remove_container(self, container_id: str) -> None:
        try:
            domain = self.conn.lookupByUUIDString(container_id)
        except libvirt.libvirtError as e:
            if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                logger.warning("Container %s already removed", container_id)
                self._drop_task_dir(container_id)
                return
            raise BackendError(f"failed to look up container {container_id}: {e}") from e
        try:
            if domain.isActive():
                domain.destroy()
            domain.undefine()
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to remove container {container_id}: {e}") from e
        self._drop_task_dir(container_id)

    def get_container_port(self, container_id: str, container_port: int) -> int:
        domain = self._lookup(container_id)
        try:
            metadata = domain.metadata(libvirt.VIR_DOMAIN_METADATA_ELEMENT, METADATA_NS, 0)
        except libvirt.libvirtError as e:
            raise BackendError(f"container {container_id} has no port metadata: {e}") from e
        ports_node = ET.fromstring(metadata).find(f"{{{METADATA_NS}}}ports")
        if ports_node is None:
            # libvirt 가 네임스페이스 접두사 없이 돌려주는 경우
            ports_node = ET.fromstring(metadata).find("ports")
        host_port = find_host_port(ports_node.text if ports_node is not None else "", int(container_port))
        if host_port is None:
            raise BackendError(f"container port {container_port} is not published by {container_id}")
        return host_port

    def get_container_stats(self, container_id: str) -> Dict[str, float]:
        domain = self._lookup(container_id)
        try:
            state, max_mem_kib, mem_kib, vcpus, cpu_time_ns = domain.info()
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to read stats for {container_id}: {e}") from e
        return {
            "state": state,
            "cpu_time_ns": cpu_time_ns,
            "memory_kib": mem_kib,
            "max_memory_kib": max_mem_kib,
            "vcpus": vcpus,
        }

    def get_logs(self, container_id: str, tail: int = 100) -> str:
        domain = self._lookup(container_id)
        log_path = os.path.join(self.log_dir, f"{domain.name()}.log")
        try:
            with open(log_path, "r", errors="replace") as f:
                lines = f.readlines()
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise BackendError(f"failed to read logs for {container_id}: {e}") from e
        return "".join(lines[-tail:]) if tail > 0 else "".join(lines)

    def run_task(self, options: RunTaskOptions) -> str:
        task_dir = tempfile.mkdtemp(prefix="minicloud-task-")
        # 명령의 종료 코드를 작업 디렉터리에 남겨 wait_container 가 읽을 수 있게 합니다.
        quoted = " ".join("'" + arg.replace("'", "'\\''") + "'" for arg in options.command)
        wrapper = ["/bin/sh", "-c", f"{quoted}; echo $? > {TASK_MOUNT_DIR}/{EXIT_CODE_FILE}"]
        env = dict(options.env)
        if options.working_dir:
            env.setdefault("PWD", options.working_dir)

        xml = generate_container_xml(
            name=options.name or f"task-{uuid.uuid4().hex[:12]}",
            container_uuid=str(uuid.uuid4()),
            image=options.image,
            rootfs_path=self._rootfs_for(options.image),
            cpu_count=max(1, int(round(options.cpus))),
            ram_mb=options.memory_mb,
            cmd=wrapper,
            env=env,
            mounts=list(options.binds) + [f"{task_dir}:{TASK_MOUNT_DIR}"],
        )
        try:
            domain = self._define_and_start(xml)
        except BackendError:
            shutil.rmtree(task_dir, ignore_errors=True)
            raise
        container_id = domain.UUIDString()
        self._task_dirs[container_id] = task_dir
        return container_id

    def wait_container(self, container_id: str, timeout: Optional[float] = None) -> int:
        domain = self._lookup(container_id)
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                if not domain.isActive():
                    break
            except libvirt.libvirtError as e:
                raise BackendError(f"failed to poll container {container_id}: {e}") from e
            if deadline is not None and time.monotonic() >= deadline:
                raise BackendTimeoutError(f"container {container_id} did not exit within {timeout}s")
            time.sleep(0.5)

        task_dir = self._task_dirs.get(container_id)
        if not task_dir:
            return 0
        try:
            with open(os.path.join(task_dir, EXIT_CODE_FILE)) as f:
                return int(f.read().strip() or 0)
        except (OSError, ValueError):
            # 종료 코드를 남기지 못했다면 비정상 종료로 봅니다.
            return 1

    def _drop_task_dir(self, container_id: str):
        task_dir = self._task_dirs.pop(container_id, None)
        if task_dir:
            shutil.rmtree(task_dir, ignore_errors=True)

    def exec(self, container_id: str, cmd: List[str]) -> str:
        domain = self._lookup(container_id)
        return run_command(
            ["virsh", "-c", self.uri, "lxc-enter-namespace", domain.name(), "--noseclabel", "--"] + list(cmd)
        )

    # ------------------------------------------------------------------
    # networks
    # ------------------------------------------------------------------
    def create_network(self, name: str) -> str:
        try:
            network = self.conn.networkDefineXML(NETWORK_TEMPLATE.format(name=name))
            network.create()
            network.setAutostart(1)
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to create network {name}: {e}") from e
        return network.UUIDString()

    def remove_network(self, network_id: str) -> None:
        try:
            network = self.conn.networkLookupByUUIDString(network_id)
            if network.isActive():
                network.destroy()
            network.undefine()
        except libvirt.libvirtError as e:
            raise BackendError(f"failed to remove network {network_id}: {e}") from e

    def ping(self) -> None:
        try:
            if not self.conn.isAlive():
                raise BackendError(f"libvirt connection to {self.uri} is not alive")
        except libvirt.libvirtError as e:
            raise BackendError(f"libvirt ping failed: {e}") from e
