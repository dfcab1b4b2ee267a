"""
Parsers for .env files referenced by services and for the project-level .env.
"""
import errno
import logging
import os
from io import StringIO
from typing import Dict, Optional
from dotenv import dotenv_values

logger = logging.getLogger(__name__)

class EnvParser:
    """
    Parser for .env files, backed by python-dotenv.
    """
    @staticmethod
    def parse(env_path: str) -> Dict[str, str]:
        """
        Parses an .env file from a path.

        Args:
            env_path (str): Path to the .env file.

        Returns:
            Dict[str, str]: Dictionary of environment variables. Keys declared
            without a value map to an empty string.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        if not os.path.isfile(env_path):
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), env_path)
        values = dotenv_values(env_path, interpolate=False)
        return {k: (v if v is not None else '') for k, v in values.items()}

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, str]:
        """
        Parses environment variables from a string.
        Handles quotes, comments and the optional ``export`` prefix.
        """
        values = dotenv_values(stream=StringIO(content), interpolate=False)
        return {k: (v if v is not None else '') for k, v in values.items()}

def load_project_env(project_dir: str = ".", env_file: Optional[str] = None) -> Dict[str, str]:
    """
    Loads the project-level .env used for interpolating the descriptor itself.
    A missing default ``.env`` is not an error; an explicitly requested one is.

    :param project_dir: Directory holding the descriptor.
    :param env_file: Explicit env file path, overriding ``<project_dir>/.env``.
    :return: The variables, or an empty dict.
    """
    if env_file:
        return EnvParser.parse(env_file)
    default = os.path.join(project_dir, '.env')
    if os.path.isfile(default):
        logger.debug("Using project env file %s", default)
        return EnvParser.parse(default)
    return {}
