# minicloud/backends/nginx_proxy_adapter.py
import logging
import os
import shutil
from typing import List

from minicloud import config
from minicloud.backends.command import run_command
from minicloud.backends.interfaces import ProxyAdapter
from minicloud.database import models

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "nginx.conf"
PID_FILE_NAME = "nginx.pid"

NGINX_TEMPLATE = """events {{
    worker_connections 1024;
}}

http {{
{upstream}
    server {{
        listen {port};
        location / {{
{location}
        }}
    }}
}}
"""


def render_nginx_config(lb: models.LoadBalancer, targets: List[dict]) -> str:
    """로드밸런서 한 개에 대한 nginx 설정 파일 내용을 만듭니다. 타겟이 없으면 503 을 돌려줍니다."""
    if targets:
        servers = "".join(
            f"        server {t['host']}:{t['port']} weight={t.get('weight', 1)};\n" for t in targets
        )
        balance = "        least_conn;\n" if lb.algorithm == "least-conn" else ""
        upstream = f"    upstream backend {{\n{servers}{balance}    }}\n"
        location = (
            "            proxy_pass http://backend;\n"
            "            proxy_set_header Host $host;\n"
            "            proxy_set_header X-Real-IP $remote_addr;"
        )
    else:
        upstream = ""
        location = '            return 503 "No targets available";'
    return NGINX_TEMPLATE.format(upstream=upstream, port=lb.port, location=location)


class NginxProxyAdapter(ProxyAdapter):
    """LB 하나당 호스트 nginx 프로세스 하나를 띄우는 프록시 어댑터."""

    def __init__(self, config_dir: str = None, use_sudo: bool = False):
        self.config_dir = config_dir or config.LB_CONFIG_DIR
        self.use_sudo = use_sudo

    def _paths(self, lb_id: str):
        lb_dir = os.path.join(self.config_dir, lb_id)
        return lb_dir, os.path.join(lb_dir, CONFIG_FILE_NAME), os.path.join(lb_dir, PID_FILE_NAME)

    def _write_config(self, lb: models.LoadBalancer, targets: List[dict]) -> tuple:
        lb_dir, config_path, pid_path = self._paths(lb.id)
        os.makedirs(lb_dir, exist_ok=True)
        with open(config_path, "w") as f:
            f.write(render_nginx_config(lb, targets))
        return config_path, pid_path

    def deploy_proxy(self, lb: models.LoadBalancer, targets: List[dict]) -> str:
        config_path, pid_path = self._write_config(lb, targets)
        run_command(["nginx", "-c", config_path, "-g", f"pid {pid_path}; daemon on;"], use_sudo=self.use_sudo)
        logger.info("Deployed proxy for LB %s on port %d", lb.id, lb.port)
        return f"http://localhost:{lb.port}"

    def update_proxy_config(self, lb: models.LoadBalancer, targets: List[dict]) -> None:
        config_path, pid_path = self._write_config(lb, targets)
        run_command(["nginx", "-c", config_path, "-g", f"pid {pid_path};", "-s", "reload"], use_sudo=self.use_sudo)

    def remove_proxy(self, lb_id: str) -> None:
        lb_dir, config_path, pid_path = self._paths(lb_id)
        if os.path.exists(pid_path):
            run_command(["nginx", "-c", config_path, "-g", f"pid {pid_path};", "-s", "stop"], use_sudo=self.use_sudo)
        shutil.rmtree(lb_dir, ignore_errors=True)
        logger.info("Removed proxy for LB %s", lb_id)
