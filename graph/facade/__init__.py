from .graph_facade import GraphFacade

__all__ = ['GraphFacade']
