"""concurrent-cli - 并发运行多个命令并合并带标签的输出。

环境变量:
    CONCURRENT_LOG_DEBUG: 日志输出到临时文件 (默认 false)
    CONCURRENT_COLOR: 标签着色 auto/always/never (默认 auto)

用法:
    concurrent -n web,log -c green,blue "npm run dev" "tail -f app.log"
"""

__version__ = "1.0.0"

from .app import main

__all__ = ["__version__", "main"]
