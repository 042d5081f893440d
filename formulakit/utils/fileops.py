"""文件落盘工具

安装目标目录是共享状态，写入必须原子化：
先写同目录临时文件再 rename，目标位置不会出现半截文件。
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from pathlib import Path

EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def atomic_copy(src: Path, dest: Path, *, executable: bool = False) -> Path:
    """原子复制单个文件

    参数:
        src: 源文件
        dest: 目标文件路径（父目录自动创建）
        executable: 为 True 时确保目标带可执行位

    实现:
        1. 在目标目录创建临时文件
        2. 复制内容与权限位
        3. os.replace 原子替换目标
        4. 失败则清理临时文件
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.", suffix=".tmp")
    os.close(fd)
    try:
        shutil.copyfile(src, tmp)
        shutil.copymode(src, tmp)
        if executable:
            mode = os.stat(tmp).st_mode
            os.chmod(tmp, mode | EXEC_BITS)
        os.replace(tmp, str(dest))
    except Exception:
        # 只捕获普通异常，不拦截 KeyboardInterrupt/SystemExit
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    return dest


def remove_tree(path: Path) -> bool:
    """删除目录树，不存在时返回 False"""
    if not path.exists():
        return False
    shutil.rmtree(path, ignore_errors=True)
    return True
