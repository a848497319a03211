# minicloud/backends/exceptions.py


class BackendError(Exception):
    """외부 드라이버(libvirt, ovs, qemu-img, nginx) 호출이 실패했을 때"""
    pass


class BackendTimeoutError(BackendError):
    """대기 시간 안에 백엔드 작업이 끝나지 않았을 때"""
    pass
