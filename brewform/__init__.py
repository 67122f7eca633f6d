"""brewform - formula 描述与安装管线"""

__version__ = "0.1.0"
