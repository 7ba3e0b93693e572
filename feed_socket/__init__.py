# feed_socket：本地 SSE 转发服务（开发 / 端到端联调用）
