from originsync.signers.aliyun import AliyunRPCAuth
from originsync.signers.baidu import BCEAuth
from originsync.signers.tencent import TC3Auth

__all__ = ["AliyunRPCAuth", "BCEAuth", "TC3Auth"]
