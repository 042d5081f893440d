"""formulakit - 声明式 formula 解析与构建安装引擎"""

__version__ = "0.1.0"
