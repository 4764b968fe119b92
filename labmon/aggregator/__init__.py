"""
Lab Monitor Aggregator

中心服务：接收 Agent 上报、查询聚合、REST API
"""
