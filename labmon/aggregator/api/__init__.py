"""REST API 模块"""
