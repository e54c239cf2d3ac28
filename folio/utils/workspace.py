"""站点工作区路径"""
import os
from flask import current_app


def site_dir(site, *parts):
    return os.path.join(current_app.config['WORKSPACE_PATH'], 'sites', site.slug, *parts)


def html_dir(site):
    return site_dir(site, 'html')


def markdown_dir(site):
    return site_dir(site, 'markdown')


def images_dir(site):
    return site_dir(site, 'images')


def repos_dir(site):
    """git 临时工作副本的父目录，每次发布 / 备份在其下新建克隆"""
    return site_dir(site, 'repos')


def profiles_dir():
    return current_app.config['PROFILES_PATH']


def import_dir(site):
    return os.path.join(current_app.config['IMPORT_BASE_PATH'], site.slug)
