"""领域层模型与协议。

包含：
- models: Content / Part / FunctionDeclaration / GenerateConfig 等面向模型的数据结构。
- request: 单轮请求 LLMRequest（system instruction 与工具注册表）。
- response: LLMResponse 与单次遍历的 LLMResponseStream。
- context: 可取消的调用上下文 InvocationContext。
- exceptions: 业务异常类型定义。
"""
