"""
触发层（Triggers）

入口（Pub/Sub push、Cloud Functions 事件）把 payload 交给 JobOrchestrator；
`all` 消息由 FanOutPublisher 拆成每个 source 一条消息重新投递。
"""
