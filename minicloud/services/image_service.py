import logging
import os
from typing import List

from minicloud.database import models
from minicloud.repositories.interfaces import IImageRepository, IInstanceTypeRepository
from minicloud.services.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_TYPE = "basic-2"


class ImageService:
    def __init__(self, image_repo: IImageRepository, instance_type_repo: IInstanceTypeRepository,
                 verify_rootfs: bool = True):
        """
        ImageService를 초기화합니다.

        Args:
            image_repo: 이미지 데이터에 접근하기 위한 리포지토리 객체.
            instance_type_repo: 인스턴스 타입 카탈로그 리포지토리 객체.
            verify_rootfs: True 이면 이미지의 루트 파일시스템 디렉터리가 실제로 있는지도 확인합니다.
        """
        self.image_repo = image_repo
        self.instance_type_repo = instance_type_repo
        self.verify_rootfs = verify_rootfs

    def validate_image(self, image_name: str) -> models.Image:
        """
        DB에서 이미지를 찾아 유효성을 검사하고, 존재하면 이미지 정보를 반환합니다.

        "alpine:3.19" 처럼 태그가 붙은 이름은 태그를 뗀 이름으로도 한 번 더 찾습니다.

        Raises:
            InvalidInputError: 등록되지 않은 이미지이거나, 루트 파일시스템이 디스크에 없을 때.
        """
        if not image_name:
            raise InvalidInputError("image is required")
        image = self.image_repo.find_by_name(image_name)
        if not image and ":" in image_name:
            image = self.image_repo.find_by_name(image_name.split(":", 1)[0])
        if not image:
            raise InvalidInputError(f"Image '{image_name}' is not registered.")

        if self.verify_rootfs and not os.path.isdir(image.rootfs_path):
            # DB에는 있지만 실제 루트 파일시스템이 없는 경우
            raise InvalidInputError(f"Root filesystem for image '{image_name}' not found on disk: {image.rootfs_path}")
        return image

    def validate_instance_type(self, type_name: str) -> models.InstanceType:
        """
        인스턴스 타입을 조회합니다. 이름을 생략하면 기본 타입을 사용합니다.

        Raises:
            InvalidInputError: 존재하지 않는 인스턴스 타입일 때.
        """
        instance_type = self.instance_type_repo.find_by_name(type_name or DEFAULT_INSTANCE_TYPE)
        if not instance_type:
            raise InvalidInputError(f"invalid instance type '{type_name}'")
        return instance_type

    def list_images(self) -> List[models.Image]:
        return self.image_repo.list_all()

    def list_instance_types(self) -> List[models.InstanceType]:
        return self.instance_type_repo.list_all()
