"""
业务异常：服务层抛出，路由层按各接口的响应格式转换
"""


class BillingError(Exception):
    """计费业务异常基类"""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(BillingError):
    """缺少字段或参数格式不合法"""
    status_code = 400


class NotFoundError(BillingError):
    """引用的套餐或订阅不存在"""
    status_code = 404


class InvalidStateError(BillingError):
    """当前订阅状态不允许该操作"""
    status_code = 400


class PaymentDeclinedError(BillingError):
    """支付网关拒付（预期内的业务结果，不是系统错误）"""
    status_code = 402
