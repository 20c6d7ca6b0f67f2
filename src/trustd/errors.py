"""
错误类型。

单次调用的错误继承自 TrustdError，并携带对应的 gRPC 状态码，由路由层在 RPC 边界统一转换。
进程级错误（TransportError、BindError、ServeError）是致命错误，由 main.run 向上抛出。
"""

import grpc


class TrustdError(Exception):
    """以 RPC 状态码返回给调用方的错误的基类。"""

    code = grpc.StatusCode.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(TrustdError):
    """Bearer token 缺失或错误。消息中不会回显 token。"""

    code = grpc.StatusCode.UNAUTHENTICATED


class PermissionDeniedError(TrustdError):
    """传输层无法给出对端身份。"""

    code = grpc.StatusCode.PERMISSION_DENIED


class ValidationError(TrustdError, ValueError):
    """格式错误的证书签名请求。"""

    code = grpc.StatusCode.INVALID_ARGUMENT


class InternalError(TrustdError, RuntimeError):
    """CA 材料无法读取或签发失败。"""

    code = grpc.StatusCode.INTERNAL


class TransportError(Exception):
    """无法加载 TLS 材料。"""


class BindError(Exception):
    """无法绑定监听地址。"""


class ServeError(Exception):
    """服务循环失败或自行停止。"""
