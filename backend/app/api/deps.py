"""
通用依赖：支付网关
"""
import random

from app.services.payment_gateway import MockPaymentGateway

# 进程内共享的拒付随机源
_decline_rng = random.Random()


def get_payment_gateway() -> MockPaymentGateway:
    """按当前配置构建模拟网关，测试中通过 dependency_overrides 替换"""
    return MockPaymentGateway.from_settings(rng=_decline_rng)
