"""服务层：账号、工作空间、成员关系、个人资料与审计的业务规则。"""
