"""
Agent：采样、本地缓冲、批量上报
"""
