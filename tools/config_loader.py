import os

import yaml

# 项目根目录（tools/ 的上一级）
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def resolve_config_path(file_path):
    """相对路径按项目根目录解析；绝对路径原样返回。"""
    if os.path.isabs(file_path):
        return file_path
    return os.path.join(PROJECT_ROOT, file_path)


def load_config(section=None, file_path="config/feed.yaml"):
    """
    加载 YAML 配置文件，并返回指定部分配置
    :param section: 配置块名称，例如 'feed'；为 None 时返回整个文件
    :param file_path: 配置文件路径（相对项目根或绝对路径）
    :raises FileNotFoundError: 文件不存在
    :raises KeyError: section 不存在
    """
    config_file = resolve_config_path(file_path)
    with open(config_file, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    if section:
        return config[section]
    return config


if __name__ == "__main__":
    cfg = load_config(section="feed")
    print("✅ 配置加载成功：")
    print(yaml.dump(cfg, allow_unicode=True, sort_keys=False))
