# minicloud/utils/container_xml_generator.py
from typing import Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

METADATA_NS = "https://minicloud.local/xmlns/container/1.0"

XML_TEMPLATE = """<domain type='lxc'>
  <name>{name}</name>
  <uuid>{uuid}</uuid>
  <metadata>
    <minicloud:container xmlns:minicloud='{namespace}'>
      <minicloud:image>{image}</minicloud:image>
      <minicloud:ports>{ports}</minicloud:ports>
      <minicloud:network>{network}</minicloud:network>
    </minicloud:container>
  </metadata>
  <memory unit='KiB'>{ram_kib}</memory>
  <vcpu>{cpu_count}</vcpu>
  <os>
    <type>exe</type>
    <init>{init}</init>
{init_args}{init_env}  </os>
  <on_poweroff>destroy</on_poweroff>
  <on_reboot>restart</on_reboot>
  <on_crash>destroy</on_crash>
  <devices>
    <filesystem type='mount'>
      <source dir={rootfs}/>
      <target dir='/'/>
    </filesystem>
{filesystems}    <console type='pty'/>
  </devices>
</domain>
"""


def _filesystem_xml(host_path: str, container_path: str, readonly: bool = False) -> str:
    # qcow2 볼륨은 nbd 로 마운트하고, 그 외 경로는 디렉터리 바인드 마운트로 처리합니다.
    if host_path.endswith(".qcow2"):
        return (
            "    <filesystem type='file'>\n"
            "      <driver type='nbd' format='qcow2'/>\n"
            f"      <source file={quoteattr(host_path)}/>\n"
            f"      <target dir={quoteattr(container_path)}/>\n"
            "    </filesystem>\n"
        )
    return (
        "    <filesystem type='mount' accessmode='passthrough'>\n"
        f"      <source dir={quoteattr(host_path)}/>\n"
        f"      <target dir={quoteattr(container_path)}/>\n"
        + ("      <readonly/>\n" if readonly else "")
        + "    </filesystem>\n"
    )


def generate_container_xml(
    name: str,
    container_uuid: str,
    image: str,
    rootfs_path: str,
    cpu_count: int = 1,
    ram_mb: int = 512,
    cmd: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    mounts: Optional[List[str]] = None,
    ports: str = "",
    network_id: str = "",
) -> str:
    """
    LXC 도메인 XML을 생성합니다.

    mounts 는 "호스트경로:컨테이너경로[:ro]" 형식의 바인드 스펙 목록이고,
    포트 매핑과 네트워크 핸들은 도메인 메타데이터에 그대로 기록됩니다.
    """
    # 메모리는 KiB 단위로 변환
    ram_kib = ram_mb * 1024
    cmd = list(cmd or ["/sbin/init"])

    init_args = "".join(f"    <initarg>{escape(arg)}</initarg>\n" for arg in cmd[1:])
    init_env = "".join(
        f"    <initenv name={quoteattr(key)}>{escape(str(value))}</initenv>\n"
        for key, value in sorted((env or {}).items())
    )

    filesystems = ""
    for spec in mounts or []:
        pieces = spec.split(":")
        mode = pieces.pop() if len(pieces) == 3 and pieces[2] in ("ro", "rw") else "rw"
        if len(pieces) != 2 or not pieces[0] or not pieces[1]:
            raise ValueError(f"invalid mount spec '{spec}', expected host:container[:ro]")
        filesystems += _filesystem_xml(pieces[0], pieces[1], readonly=mode == "ro")

    return XML_TEMPLATE.format(
        name=escape(name),
        uuid=container_uuid,
        namespace=METADATA_NS,
        image=escape(image),
        ports=escape(ports or ""),
        network=escape(network_id or ""),
        ram_kib=ram_kib,
        cpu_count=cpu_count,
        init=escape(cmd[0]),
        init_args=init_args,
        init_env=init_env,
        rootfs=quoteattr(rootfs_path),
        filesystems=filesystems,
    )
