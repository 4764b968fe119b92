"""
Lab Monitor - 实验室机器资源监控

负责：
- Agent 每秒采样本机 CPU/内存/磁盘/网络/进程指标
- 采样先写入本地缓冲文件，按批次求平均后写入共享存储
- 中心服务对存储记录做时间分桶与 Top-N 排名，提供 REST API
"""

__version__ = "1.0.0"
