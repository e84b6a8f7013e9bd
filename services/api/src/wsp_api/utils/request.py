"""请求信息提取工具。"""

from fastapi import Request

# 按优先级读取的代理透传头。
_CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-real-ip", "x-forwarded-for")


def client_ip(request: Request) -> str | None:
    """从代理头或连接信息中提取客户端 IP。"""
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # x-forwarded-for 可能携带代理链，取最前面的原始客户端。
            first = value.split(",")[0].strip()
            if first:
                return first
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")
