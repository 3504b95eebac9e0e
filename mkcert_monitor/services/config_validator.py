"""
配置验证服务
"""
import os
import shutil
from typing import Dict, Any, Mapping, Optional
import logging


VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigValidator:
    """配置验证器"""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """
        初始化配置验证器

        Args:
            env: 环境变量，默认为 os.environ
        """
        self.env = os.environ if env is None else env
        self.logger = logging.getLogger(__name__)

        # 可选的环境变量
        self.optional_env_vars = {
            'CERT_PATH': '证书存放目录',
            'MKCERT_BINARY': 'mkcert可执行文件',
            'LOG_LEVEL': '日志级别',
            'TRUST_CA_MARKER': '根证书主题标记',
            'TRUST_MAX_ATTEMPTS': '信任检查最大尝试次数',
            'TRUST_RETRY_DELAY': '信任检查重试间隔（秒）',
            'TRUST_QUERY_TIMEOUT': '信任库单次查询超时（秒）',
            'MKCERT_TIMEOUT': 'mkcert命令超时（秒）',
            'EXPIRY_WARNING_DAYS': '过期提醒天数'
        }

        # 数值配置的取值范围
        self.numeric_ranges = {
            'TRUST_MAX_ATTEMPTS': (int, 1, 10),
            'TRUST_RETRY_DELAY': (float, 0.0, 60.0),
            'TRUST_QUERY_TIMEOUT': (float, 0.1, 60.0),
            'MKCERT_TIMEOUT': (float, 1.0, 600.0),
            'EXPIRY_WARNING_DAYS': (int, 0, 365)
        }

    def validate_all_configurations(self) -> Dict[str, Any]:
        """
        验证所有配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'configurations': {}
        }

        for name, validator in (
            ('environment', self.validate_environment_variables),
            ('numeric', self.validate_numeric_settings),
            ('cert_path', self.validate_cert_path),
            ('mkcert', self.validate_mkcert_binary)
        ):
            try:
                section = validator()
            except Exception as e:
                validation_result['is_valid'] = False
                validation_result['errors'].append(f"配置验证时发生错误: {str(e)}")
                continue

            validation_result['configurations'][name] = section
            if not section['is_valid']:
                validation_result['is_valid'] = False
            validation_result['errors'].extend(section['errors'])
            validation_result['warnings'].extend(section['warnings'])

        return validation_result

    def validate_environment_variables(self) -> Dict[str, Any]:
        """
        验证环境变量

        Returns:
            Dict[str, Any]: 环境变量验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'missing_optional': [],
            'present_vars': {}
        }

        for var_name, description in self.optional_env_vars.items():
            value = self.env.get(var_name)
            if not value:
                result['missing_optional'].append({
                    'name': var_name,
                    'description': description
                })
            else:
                result['present_vars'][var_name] = value

        log_level = self.env.get('LOG_LEVEL')
        if log_level and log_level.upper() not in VALID_LOG_LEVELS:
            result['warnings'].append(f"日志级别无效: {log_level}，将使用INFO")

        return result

    def validate_numeric_settings(self) -> Dict[str, Any]:
        """
        验证数值配置

        Returns:
            Dict[str, Any]: 数值配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'values': {}
        }

        for var_name, (value_type, minimum, maximum) in self.numeric_ranges.items():
            raw_value = self.env.get(var_name)
            if not raw_value:
                continue

            try:
                value = value_type(raw_value)
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"{var_name} 格式无效: {raw_value}")
                continue

            if not minimum <= value <= maximum:
                result['is_valid'] = False
                result['errors'].append(f"{var_name} 超出范围: {value}（{minimum} - {maximum}）")
                continue

            result['values'][var_name] = value

        return result

    def validate_cert_path(self) -> Dict[str, Any]:
        """
        验证证书目录

        Returns:
            Dict[str, Any]: 证书目录验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'cert_path': self.env.get('CERT_PATH'),
            'exists': False,
            'writable': False
        }

        cert_path = result['cert_path']
        if not cert_path:
            result['warnings'].append("CERT_PATH未设置，将使用默认目录")
            return result

        if os.path.exists(cert_path) and not os.path.isdir(cert_path):
            result['is_valid'] = False
            result['errors'].append(f"CERT_PATH不是目录: {cert_path}")
            return result

        result['exists'] = os.path.isdir(cert_path)
        if not result['exists']:
            result['warnings'].append(f"证书目录不存在，将在生成证书时创建: {cert_path}")
            return result

        result['writable'] = os.access(cert_path, os.W_OK)
        if not result['writable']:
            result['warnings'].append(f"证书目录不可写: {cert_path}")

        return result

    def validate_mkcert_binary(self) -> Dict[str, Any]:
        """
        验证mkcert是否可用

        Returns:
            Dict[str, Any]: mkcert验证结果
        """
        binary = self.env.get('MKCERT_BINARY') or 'mkcert'
        resolved = shutil.which(binary)

        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'binary': binary,
            'resolved_path': resolved
        }

        if not resolved:
            result['warnings'].append(f"找不到mkcert可执行文件: {binary}")

        return result

    def get_configuration_summary(self) -> str:
        """
        获取配置摘要

        Returns:
            str: 配置摘要文本
        """
        validation_result = self.validate_all_configurations()

        lines = [
            "配置验证摘要",
            "=" * 30
        ]

        if validation_result['is_valid']:
            lines.append("配置验证通过")
        else:
            lines.append("配置验证失败")

        if validation_result['errors']:
            lines.append("\n错误:")
            for error in validation_result['errors']:
                lines.append(f"  • {error}")

        if validation_result['warnings']:
            lines.append("\n警告:")
            for warning in validation_result['warnings']:
                lines.append(f"  • {warning}")

        env_config = validation_result['configurations'].get('environment', {})
        if env_config.get('present_vars'):
            lines.append("\n环境变量:")
            for var_name, var_value in env_config['present_vars'].items():
                lines.append(f"  {var_name}: {var_value}")

        return "\n".join(lines)
