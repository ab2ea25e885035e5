"""
Plugin factory: builds new plugin images from a template directory.

1. Writes ``config.json`` (plugin name and URL) into the build context
2. Builds the Docker image, tagged with the plugin prefix + plugin name
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import docker
from docker.errors import BuildError, DockerException

from .errors import PluginBuildError
from .naming import PLUGIN_PREFIX
from ..models.plugin import NewPluginRequest

CONFIG_FILENAME = "config.json"


class DockerPluginFactory:
    """Creates plugin images with ``docker build``."""

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        plugin_prefix: str = PLUGIN_PREFIX,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.client = client or docker.from_env()
        self.plugin_prefix = plugin_prefix

    def image_tag(self, name: str) -> str:
        return f"{self.plugin_prefix}{name}"

    def write_configuration(self, request: NewPluginRequest) -> Path:
        """Write the plugin's configuration file into its build context.

        Raises:
            PluginBuildError: If the file cannot be written
        """
        config_path = Path(request.directory) / CONFIG_FILENAME
        try:
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump({"url": request.url, "name": request.name}, f)
                f.write("\n")
        except OSError as e:
            self.logger.error(
                "Error while creating configuration file",
                extra={"path": str(config_path), "error": str(e)}
            )
            raise PluginBuildError(f"Cannot write {config_path}: {e}") from e
        return config_path

    def build_image(self, request: NewPluginRequest) -> str:
        """Build the plugin image from ``request.directory``.

        Returns:
            Tag of the built image

        Raises:
            PluginBuildError: If Docker fails to build the image
        """
        tag = self.image_tag(request.name)
        try:
            image, build_logs = self.client.images.build(path=request.directory, tag=tag, rm=True)
        except BuildError as e:
            self.logger.error("Image build failed", extra={"tag": tag, "error": e.msg})
            raise PluginBuildError(f"Build of {tag} failed: {e.msg}") from e
        except (DockerException, OSError, TypeError) as e:
            self.logger.error("Image build failed", extra={"tag": tag, "error": str(e)})
            raise PluginBuildError(f"Build of {tag} failed: {e}") from e

        for chunk in build_logs:
            line = chunk.get("stream", "").rstrip() if isinstance(chunk, dict) else ""
            if line:
                self.logger.debug("docker build", extra={"tag": tag, "output": line})
        self.logger.info("Image built", extra={"tag": tag, "image_id": getattr(image, "id", None)})
        return tag

    def _create_plugin(self, request: NewPluginRequest) -> str:
        self.write_configuration(request)
        return self.build_image(request)

    async def create_plugin(self, request: NewPluginRequest) -> str:
        """Write the configuration file and build the plugin image.

        Raises:
            PluginBuildError: If any step fails
        """
        self.logger.info(
            "Creating plugin",
            extra={"plugin": request.name, "url": request.url, "directory": request.directory}
        )
        return await asyncio.to_thread(self._create_plugin, request)
