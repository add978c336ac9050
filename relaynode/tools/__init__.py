"""部署步骤模块：软件包、防火墙、运行时、密钥、证书、配置、服务与续期。"""
